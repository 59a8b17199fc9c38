from flask import Flask, jsonify, request, session
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from flask_wtf.csrf import CSRFProtect, CSRFError, generate_csrf
from flask_talisman import Talisman
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from dotenv import load_dotenv
from datetime import timedelta
import os
import logging
import click

import assistant
import payments
import storage
from access import caller_required, permission_required, super_admin_required
from errors import (
    AuthorizationError, ConflictError, ProtectedAccountError, StoreError, UpstreamError, ValidationFailed,
)
from identity import verify_google_token
from forms import (
    AnnouncementForm, ChatForm, ContactMessageForm, GoogleLoginForm, LoginForm, OrderStatusForm,
    PaymentForm, PermissionsForm, ProductForm, SellerRegistrationForm, UserCreateForm, YoutubeResourceForm,
)
from models import db, bcrypt, User, OrderStatus, Permission, Role

# Load environment variables
load_dotenv()


def env_flag(name, default):
    return os.getenv(name, str(default)).strip().lower() in ('1', 'true', 'yes', 'on')


app = Flask(__name__)

# --- Configuration ---
app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'fallback_secret_key_CHANGE_THIS')
app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'sqlite:///database.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

# Secure Cookies (requires HTTPS unless switched off for local work)
app.config['SESSION_COOKIE_SECURE'] = env_flag('SESSION_COOKIE_SECURE', True)
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Strict'
app.config['REMEMBER_COOKIE_SECURE'] = app.config['SESSION_COOKIE_SECURE']
app.config['REMEMBER_COOKIE_HTTPONLY'] = True
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=7)

app.config['RATELIMIT_ENABLED'] = env_flag('RATELIMIT_ENABLED', True)
app.config['WTF_CSRF_ENABLED'] = env_flag('WTF_CSRF_ENABLED', True)
app.config['BCRYPT_LOG_ROUNDS'] = int(os.getenv('BCRYPT_LOG_ROUNDS', '12'))

# The super-admin is a reserved identity, never a regular role grant
app.config['SUPER_ADMIN_ID'] = os.getenv('SUPER_ADMIN_ID', 'mohit')
app.config['SUPER_ADMIN_USERNAME'] = os.getenv('SUPER_ADMIN_USERNAME', app.config['SUPER_ADMIN_ID'])
app.config['SUPER_ADMIN_EMAIL'] = os.getenv('SUPER_ADMIN_EMAIL')
app.config['SUPER_ADMIN_PASSWORD'] = os.getenv('SUPER_ADMIN_PASSWORD')

app.config['FIREBASE_PROJECT_ID'] = os.getenv('FIREBASE_PROJECT_ID')

app.config['GROQ_API_KEY'] = os.getenv('GROQ_API_KEY')
app.config['GROQ_MODEL'] = os.getenv('GROQ_MODEL', 'llama3-8b-8192')
app.config['GROQ_API_URL'] = os.getenv('GROQ_API_URL', 'https://api.groq.com/openai/v1/chat/completions')
app.config['GROQ_TIMEOUT'] = float(os.getenv('GROQ_TIMEOUT', '15'))

# Initialize Extensions
db.init_app(app)
bcrypt.init_app(app)
csrf = CSRFProtect(app)
login_manager = LoginManager(app)
login_manager.session_protection = 'strong' # Protect against session hijacking

# Content Security Policy (CSP)
csp = {
    'default-src': '\'self\'',
    'style-src': ['\'self\'', '\'unsafe-inline\'', 'https://fonts.googleapis.com'],
    'font-src': ['\'self\'', 'https://fonts.gstatic.com'],
    'img-src': ['\'self\'', 'data:', 'https://img.youtube.com', 'https://images.unsplash.com'],
    'frame-src': ['https://www.youtube.com']
}

# Talisman for HTTP Headers (HSTS, XSS, Frame Options)
talisman = Talisman(
    app,
    content_security_policy=csp,
    force_https=env_flag('FORCE_HTTPS', False),
    strict_transport_security=True,
    session_cookie_secure=app.config['SESSION_COOKIE_SECURE'],
    session_cookie_samesite='Strict',
    frame_options='DENY' # Prevent Clickjacking
)

# Rate Limiting
limiter = Limiter(
    get_remote_address,
    app=app,
    default_limits=["200 per day", "50 per hour"],
    storage_uri="memory://"
)

# Logging
logging.basicConfig(
    filename=os.getenv('LOG_FILE', 'security.log'),
    level=getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)


@login_manager.user_loader
def load_user(user_id):
    user = db.session.get(User, user_id)
    # Deactivated accounts lose their live sessions too
    return user if user and user.is_active else None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify(message='Unauthorized'), 401


def json_body():
    return request.get_json(silent=True) or {}


def listing_args():
    include_inactive = request.args.get('include_inactive', '').lower() in ('1', 'true', 'yes')
    return {
        'category': request.args.get('category') or None,
        'query': request.args.get('search') or None,
        'include_inactive': include_inactive,
    }


def start_session(user):
    session.permanent = True
    login_user(user)
    storage.record_login(user)


# --- Storefront (public, active rows only) ---

@app.route('/api/products')
def list_products():
    args = listing_args()
    rows = storage.products.list(category=args['category'], query=args['query'])
    return jsonify([p.to_dict() for p in rows])


@app.route('/api/products/<int:product_id>')
def get_product(product_id):
    return jsonify(storage.products.require(product_id).to_dict())


@app.route('/api/products/<int:product_id>/payment-options')
def product_payment_options(product_id):
    product = storage.products.require(product_id)
    return jsonify(product_id=product.product_id, price=f'{product.price:.2f}',
                   options=payments.quote_all(product))


@app.route('/api/youtube-resources')
def list_youtube_resources():
    args = listing_args()
    rows = storage.youtube_resources.list(category=args['category'], query=args['query'])
    return jsonify([r.to_dict() for r in rows])


@app.route('/api/youtube-resources/<int:resource_id>')
def get_youtube_resource(resource_id):
    return jsonify(storage.youtube_resources.require(resource_id).to_dict())


# --- Owner-scoped catalogue management ---

@app.route('/api/admin/products')
@caller_required
def admin_list_products(caller):
    rows = storage.products.list(caller, **listing_args())
    return jsonify([p.to_dict() for p in rows])


@app.route('/api/admin/products/<int:product_id>')
@caller_required
def admin_get_product(caller, product_id):
    return jsonify(storage.products.require(product_id, caller).to_dict())


@app.route('/api/products', methods=['POST'])
@caller_required
def create_product(caller):
    form = ProductForm.from_json(json_body()).require_valid()
    product = storage.products.create(form.submitted_data(), caller)
    return jsonify(product.to_dict()), 201


@app.route('/api/products/<int:product_id>', methods=['PUT'])
@caller_required
def update_product(caller, product_id):
    form = ProductForm.from_json(json_body()).require_valid(partial=True)
    product = storage.products.update(product_id, form.submitted_data(), caller)
    return jsonify(product.to_dict())


@app.route('/api/products/<int:product_id>', methods=['DELETE'])
@caller_required
def delete_product(caller, product_id):
    storage.products.soft_delete(product_id, caller)
    return '', 204


@app.route('/api/admin/youtube-resources')
@caller_required
def admin_list_youtube_resources(caller):
    rows = storage.youtube_resources.list(caller, **listing_args())
    return jsonify([r.to_dict() for r in rows])


@app.route('/api/admin/youtube-resources/<int:resource_id>')
@caller_required
def admin_get_youtube_resource(caller, resource_id):
    return jsonify(storage.youtube_resources.require(resource_id, caller).to_dict())


@app.route('/api/youtube-resources', methods=['POST'])
@caller_required
def create_youtube_resource(caller):
    form = YoutubeResourceForm.from_json(json_body()).require_valid()
    resource = storage.youtube_resources.create(form.submitted_data(), caller)
    return jsonify(resource.to_dict()), 201


@app.route('/api/youtube-resources/<int:resource_id>', methods=['PUT'])
@caller_required
def update_youtube_resource(caller, resource_id):
    form = YoutubeResourceForm.from_json(json_body()).require_valid(partial=True)
    resource = storage.youtube_resources.update(resource_id, form.submitted_data(), caller)
    return jsonify(resource.to_dict())


@app.route('/api/youtube-resources/<int:resource_id>', methods=['DELETE'])
@caller_required
def delete_youtube_resource(caller, resource_id):
    storage.youtube_resources.soft_delete(resource_id, caller)
    return '', 204


# --- Contact messages ---

@app.route('/api/contact-messages')
@caller_required
def list_contact_messages(caller):
    return jsonify([m.to_dict() for m in storage.list_contact_messages()])


@app.route('/api/contact-messages', methods=['POST'])
def create_contact_message():
    form = ContactMessageForm.from_json(json_body()).require_valid()
    message = storage.create_contact_message(form.name.data, form.email.data, form.message.data)
    return jsonify(message.to_dict()), 201


@app.route('/api/contact-messages/<int:message_id>/read', methods=['PATCH'])
@caller_required
def mark_contact_message_read(caller, message_id):
    storage.mark_message_as_read(message_id)
    return '', 204


# --- Users (super-admin only) ---

@app.route('/api/users')
@super_admin_required
def list_users(caller):
    return jsonify([u.to_dict() for u in storage.list_users()])


@app.route('/api/users', methods=['POST'])
@super_admin_required
def create_user(caller):
    form = UserCreateForm.from_json(json_body()).require_valid()
    user = storage.create_user(
        form.username.data,
        form.password.data,
        role=Role(form.role.data),
        email=form.email.data or None,
        first_name=form.first_name.data or None,
        last_name=form.last_name.data or None,
    )
    return jsonify(user.to_dict()), 201


@app.route('/api/users/<user_id>', methods=['DELETE'])
@super_admin_required
def delete_user(caller, user_id):
    if user_id == app.config['SUPER_ADMIN_ID']:
        logging.warning(f"{caller.user_id} attempted to delete the main admin account")
        raise ProtectedAccountError('Cannot delete main admin user')
    storage.delete_user(user_id)
    logging.info(f"User {user_id} deleted by {caller.user_id}")
    return '', 204


@app.route('/api/users/<user_id>/permissions', methods=['PATCH'])
@super_admin_required
def update_user_permissions(caller, user_id):
    if user_id == app.config['SUPER_ADMIN_ID']:
        raise ProtectedAccountError('Cannot modify permissions of main admin user')
    form = PermissionsForm.from_json(json_body())
    if 'permissions' not in form.submitted:
        raise ValidationFailed(errors={'permissions': ['This field is required.']})
    form.require_valid()
    permissions = [Permission(value) for value in form.permissions.data or []]
    user = storage.update_user_permissions(user_id, permissions)
    return jsonify(user.to_dict())


# --- Auth ---

@app.route('/api/csrf-token')
def csrf_token():
    return jsonify(csrf_token=generate_csrf())


@app.route('/api/login', methods=['POST'])
@limiter.limit("5 per minute")
def login():
    form = LoginForm.from_json(json_body())
    # Honeypot check
    if form.honeypot.data:
        logging.warning(f"Bot detected via honeypot from {request.remote_addr}")
        return jsonify(message='Invalid credentials'), 401
    form.require_valid()

    user = storage.get_user_by_username(form.username.data)
    if user and user.is_active and user.check_password(form.password.data):
        start_session(user)
        logging.info(f"Successful login for user: {user.username}")
        return jsonify(message='Login successful', user=user.to_dict())

    logging.warning(f"Failed login attempt for user: {form.username.data} from {request.remote_addr}")
    return jsonify(message='Invalid credentials'), 401


@app.route('/api/auth/user')
@caller_required
def auth_user(caller):
    body = current_user.to_dict()
    body['role'] = caller.role.value
    body['is_super_admin'] = caller.is_super_admin
    return jsonify(body)


@app.route('/api/logout', methods=['POST'])
@login_required
def logout():
    logging.info(f"Logout for user: {current_user.id}")
    logout_user()
    return jsonify(message='Logged out')


@app.route('/api/auth/google-login', methods=['POST'])
def google_login():
    form = GoogleLoginForm.from_json(json_body()).require_valid()
    claims = verify_google_token(form.id_token.data)
    google_id = claims['sub']

    user = storage.get_user_by_google_id(google_id)
    if user is None and claims.get('email_verified'):
        user = storage.get_user_by_email(claims.get('email'))
    if user is not None and user.id == app.config['SUPER_ADMIN_ID']:
        logging.warning(f"Google sign-in for the main admin refused from {request.remote_addr}")
        raise AuthorizationError('The main admin account signs in with a password')
    if user is None or not user.is_active:
        return jsonify(user_exists=False)
    if user.google_id and user.google_id != google_id:
        logging.warning(f"Google id mismatch for {user.id} from {request.remote_addr}")
        raise ConflictError('Email is linked to a different Google account')

    storage.link_google_account(user, google_id, claims.get('picture'))
    start_session(user)
    logging.info(f"Google login for user: {user.id}")
    return jsonify(user_exists=True, user=user.to_dict())


@app.route('/api/auth/register-seller', methods=['POST'])
def register_seller():
    form = SellerRegistrationForm.from_json(json_body()).require_valid()
    claims = verify_google_token(form.id_token.data)
    profile = form.submitted_data()
    profile.pop('id_token')
    profile['email'] = claims.get('email') if claims.get('email_verified') else None
    if claims.get('picture') and not profile.get('profile_image_url'):
        profile['profile_image_url'] = claims['picture']
    user = storage.register_seller(claims['sub'], profile)
    start_session(user)
    return jsonify(message='Seller registered', user=user.to_dict()), 201


# --- Payments and seller inbox ---

@app.route('/api/process-payment', methods=['POST'])
def process_payment():
    form = PaymentForm.from_json(json_body()).require_valid()
    order, quote = payments.process_payment(form.data)
    return jsonify(
        success=True,
        message='Order placed' if order.status == OrderStatus.CONFIRMED else 'Payment initiated',
        order_id=order.order_id,
        transaction_id=order.transaction_id,
        status=order.status.value,
        payment_plan=quote,
        order=order.to_dict(),
    ), 201


@app.route('/api/seller/orders')
@caller_required
def seller_orders(caller):
    return jsonify([o.to_dict() for o in storage.list_orders(caller)])


@app.route('/api/orders/<order_id>/status', methods=['PATCH'])
@caller_required
def update_order_status(caller, order_id):
    form = OrderStatusForm.from_json(json_body()).require_valid()
    order = storage.update_order_status(order_id, OrderStatus(form.status.data), caller)
    return jsonify(order.to_dict())


@app.route('/api/seller/messages')
@caller_required
def seller_messages(caller):
    return jsonify([m.to_dict() for m in storage.list_seller_messages(caller)])


@app.route('/api/seller/unread-count')
@caller_required
def seller_unread_count(caller):
    return jsonify(count=storage.unread_message_count(caller))


@app.route('/api/seller/messages/<int:message_id>/read', methods=['PATCH'])
@caller_required
def mark_seller_message_read(caller, message_id):
    storage.mark_seller_message_as_read(message_id, caller)
    return '', 204


# --- Announcements ---

@app.route('/api/announcements')
def list_announcements():
    return jsonify([a.to_dict() for a in storage.list_announcements(active_only=True)])


@app.route('/api/admin/announcements')
@permission_required(Permission.MANAGE_ANNOUNCEMENTS)
def admin_list_announcements(caller):
    return jsonify([a.to_dict() for a in storage.list_announcements()])


@app.route('/api/announcements', methods=['POST'])
@permission_required(Permission.MANAGE_ANNOUNCEMENTS)
def create_announcement(caller):
    form = AnnouncementForm.from_json(json_body()).require_valid()
    announcement = storage.create_announcement(form.submitted_data(), caller)
    return jsonify(announcement.to_dict()), 201


@app.route('/api/announcements/<int:announcement_id>', methods=['PUT'])
@permission_required(Permission.MANAGE_ANNOUNCEMENTS)
def update_announcement(caller, announcement_id):
    form = AnnouncementForm.from_json(json_body()).require_valid(partial=True)
    announcement = storage.update_announcement(announcement_id, form.submitted_data())
    return jsonify(announcement.to_dict())


@app.route('/api/announcements/<int:announcement_id>', methods=['DELETE'])
@permission_required(Permission.MANAGE_ANNOUNCEMENTS)
def delete_announcement(caller, announcement_id):
    storage.delete_announcement(announcement_id)
    return '', 204


# --- AI chat ---

@app.route('/api/ai-chat', methods=['POST'])
@limiter.limit("10 per minute")
def ai_chat():
    form = ChatForm.from_json(json_body())
    if not form.validate():
        return jsonify(response='Message is required', errors=form.field_errors()), 400
    try:
        reply = assistant.ask(form.message.data)
    except UpstreamError as exc:
        logging.error(f"AI chat failed: {exc}")
        return jsonify(response=assistant.FALLBACK_REPLY), 502
    return jsonify(response=reply)


# --- Error Handlers ---

@app.errorhandler(StoreError)
def store_error(err):
    return jsonify(err.to_dict()), err.status_code


@app.errorhandler(CSRFError)
def csrf_error(e):
    logging.warning(f"CSRF failure on {request.path} from {request.remote_addr}: {e.description}")
    return jsonify(message=e.description), 400


@app.errorhandler(404)
def page_not_found(e):
    return jsonify(message='Not found'), 404


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify(message='Method not allowed'), 405


@app.errorhandler(429)
def rate_limited(e):
    logging.warning(f"Rate limit hit on {request.path} from {request.remote_addr}")
    return jsonify(message='Too many requests'), 429


@app.errorhandler(500)
def internal_server_error(e):
    logging.error(f"Unhandled error on {request.method} {request.path}",
                  exc_info=getattr(e, 'original_exception', None))
    return jsonify(message='Internal server error'), 500


# --- Database Setup ---

def bootstrap_super_admin():
    """Make sure the reserved main admin account exists."""
    admin_id = app.config['SUPER_ADMIN_ID']
    admin = storage.get_user(admin_id)
    if admin is not None:
        return admin
    password = app.config['SUPER_ADMIN_PASSWORD']
    if not password:
        logging.warning("SUPER_ADMIN_PASSWORD is not set, the main admin cannot log in with a password")
    admin = storage.upsert_user(
        admin_id,
        username=app.config['SUPER_ADMIN_USERNAME'],
        email=app.config['SUPER_ADMIN_EMAIL'],
        role=Role.SUPER_ADMIN,
        is_verified=True,
        permissions=[p.value for p in Permission],
        password=password,
    )
    logging.info(f"Created main admin account {admin_id}")
    return admin


def create_db():
    with app.app_context():
        db.create_all()
        bootstrap_super_admin()


@app.cli.command('init-db')
def init_db_command():
    """Create the tables and the main admin account."""
    create_db()
    click.echo('Database initialised.')


if __name__ == '__main__':
    create_db()
    # In production, debug must be False
    app.run(debug=False)
