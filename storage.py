import logging
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from access import OwnershipPolicy
from errors import ConflictError, NotFoundError, ProtectedAccountError
from identifiers import next_product_code
from models import (
    Announcement,
    ContactMessage,
    Order,
    Product,
    Role,
    SellerMessage,
    User,
    YoutubeResource,
    db,
)

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
YOUTUBE_ID_RE = re.compile(r'(?:youtube\.com/watch\?v=|youtu\.be/)([^&\n?#]+)')


def like_pattern(query):
    """Substring pattern for ILIKE with the wildcard characters taken literally."""
    escaped = query.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def youtube_thumbnail(url):
    match = YOUTUBE_ID_RE.search(url or '')
    if match is None:
        return None
    return f'https://img.youtube.com/vi/{match.group(1)}/maxresdefault.jpg'


def _commit(conflict_message='Resource already exists'):
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning(f"Integrity error on commit: {exc.orig}")
        raise ConflictError(conflict_message) from exc


# --- Owner-scoped catalogue ---

class OwnedCatalog:
    """CRUD over a model whose rows belong to one owner.

    Every read and write goes through the model's OwnershipPolicy, so a
    caller who does not own a row gets the same answer as if the row did not
    exist. ``caller=None`` means an anonymous storefront visitor.
    """

    def __init__(self, model, label, editable, search_columns):
        self.model = model
        self.label = label
        self.editable = frozenset(editable)
        self.search_columns = search_columns
        self.policy = OwnershipPolicy(model)

    def _select(self, caller, listing=False, include_inactive=False):
        return self.policy.scope(select(self.model), caller, listing=listing, include_inactive=include_inactive)

    def _clean(self, data, row=None):
        return {key: value for key, value in data.items() if key in self.editable}

    def _before_insert(self, row):
        pass

    def list(self, caller=None, include_inactive=False, category=None, query=None):
        stmt = self._select(caller, listing=True, include_inactive=include_inactive)
        if category:
            stmt = stmt.where(self.model.category == category)
        if query:
            pattern = like_pattern(query)
            stmt = stmt.where(or_(*(column.ilike(pattern, escape='\\') for column in self.search_columns)))
        stmt = stmt.order_by(self.model.created_at.desc(), self.model.id.desc())
        return db.session.scalars(stmt).all()

    def list_by_category(self, category, caller=None, include_inactive=False):
        return self.list(caller, include_inactive=include_inactive, category=category)

    def search(self, query, caller=None, include_inactive=False):
        return self.list(caller, include_inactive=include_inactive, query=query)

    def get(self, row_id, caller=None):
        return db.session.scalars(self._select(caller).where(self.model.id == row_id)).first()

    def require(self, row_id, caller=None):
        row = self.get(row_id, caller)
        if row is None:
            raise NotFoundError(f'{self.label} not found')
        return row

    def create(self, data, caller):
        data = self._clean(data)
        is_active = data.pop('is_active', None)
        row = self.model(**data)
        row.owner_id = caller.user_id
        row.is_active = True if is_active is None else bool(is_active)
        self._before_insert(row)
        db.session.add(row)
        _commit(f'{self.label} could not be created')
        logger.info(f"{caller.user_id} created {self.label.lower()} {row.id}")
        return row

    def update(self, row_id, data, caller):
        row = self.require(row_id, caller)
        for key, value in self._clean(data, row).items():
            setattr(row, key, value)
        _commit(f'{self.label} could not be updated')
        return row

    def soft_delete(self, row_id, caller):
        row = self.require(row_id, caller)
        if row.is_active:
            row.is_active = False
            _commit()
            logger.info(f"{caller.user_id} deactivated {self.label.lower()} {row.id}")
        return row


class ProductCatalog(OwnedCatalog):

    def _clean(self, data, row=None):
        data = super()._clean(data, row)
        if data.get('price') is not None:
            data['price'] = Decimal(str(data['price'])).quantize(CENTS, rounding=ROUND_HALF_UP)
        if data.get('currency'):
            data['currency'] = data['currency'].upper()
        return data

    def _before_insert(self, row):
        row.product_id = next_product_code(row.category)

    def get_by_code(self, code, caller=None):
        stmt = self._select(caller).where(self.model.product_id == code)
        return db.session.scalars(stmt).first()


class YoutubeCatalog(OwnedCatalog):

    def _clean(self, data, row=None):
        data = super()._clean(data, row)
        url = data.get('youtube_url')
        if url and not data.get('thumbnail_url'):
            derived_before = row is not None and row.thumbnail_url == youtube_thumbnail(row.youtube_url)
            if row is None or not row.thumbnail_url or derived_before:
                data['thumbnail_url'] = youtube_thumbnail(url)
        return data


products = ProductCatalog(
    Product,
    'Product',
    editable=('name', 'description', 'price', 'currency', 'category', 'image_url',
              'video_url', 'purchase_link', 'is_active'),
    search_columns=(Product.name, Product.product_id, Product.description),
)

youtube_resources = YoutubeCatalog(
    YoutubeResource,
    'YouTube resource',
    editable=('title', 'description', 'youtube_url', 'thumbnail_url', 'category',
              'duration', 'views', 'is_active'),
    search_columns=(YoutubeResource.title, YoutubeResource.description),
)


# --- Users ---

def _is_protected(user_id):
    return user_id == current_app.config['SUPER_ADMIN_ID']


def get_user(user_id):
    return db.session.get(User, user_id)


def get_user_by_username(username):
    return db.session.scalars(select(User).where(User.username == username)).first()


def get_user_by_email(email):
    if not email:
        return None
    return db.session.scalars(select(User).where(func.lower(User.email) == email.lower())).first()


def get_user_by_google_id(google_id):
    return db.session.scalars(select(User).where(User.google_id == google_id)).first()


def list_users():
    return db.session.scalars(select(User).order_by(User.created_at.desc())).all()


def _ensure_unique(user_id=None, username=None, email=None, google_id=None):
    if user_id and get_user(user_id):
        raise ConflictError('User already exists')
    if username and get_user_by_username(username):
        raise ConflictError('Username already taken')
    if email and get_user_by_email(email):
        raise ConflictError('Email already registered')
    if google_id and get_user_by_google_id(google_id):
        raise ConflictError('Google account already registered')


def create_user(username, password, role=Role.USER, **profile):
    """Admin-issued local account; the username doubles as the id."""
    _ensure_unique(user_id=username, username=username, email=profile.get('email'))
    user = User(id=username, username=username, role=role, **profile)
    user.set_password(password)
    db.session.add(user)
    _commit('User already exists')
    logger.info(f"Created user {user.id} with role {role.value}")
    return user


def register_seller(google_id, profile):
    _ensure_unique(user_id=google_id, username=profile.get('username'),
                   email=profile.get('email'), google_id=google_id)
    user = User(id=google_id, google_id=google_id, role=Role.SELLER, is_verified=True, **profile)
    db.session.add(user)
    _commit('Seller already registered')
    logger.info(f"Registered seller {user.id} ({user.store_name})")
    return user


def upsert_user(user_id, **fields):
    user = get_user(user_id)
    if user is None:
        user = User(id=user_id)
        db.session.add(user)
    password = fields.pop('password', None)
    for key, value in fields.items():
        setattr(user, key, value)
    if password:
        user.set_password(password)
    _commit('User already exists')
    return user


def link_google_account(user, google_id, profile_image_url=None):
    if not user.google_id:
        user.google_id = google_id
    if profile_image_url and not user.profile_image_url:
        user.profile_image_url = profile_image_url
    _commit('Google account already linked to another user')
    return user


def record_login(user):
    user.last_login_at = datetime.utcnow()
    _commit()


def update_user_permissions(user_id, permissions):
    if _is_protected(user_id):
        raise ProtectedAccountError('Cannot modify permissions of main admin user')
    user = get_user(user_id)
    if user is None:
        raise NotFoundError('User not found')
    user.permissions = sorted({permission.value for permission in permissions})
    _commit()
    logger.info(f"Permissions of {user_id} set to {user.permissions}")
    return user


def delete_user(user_id):
    """Remove a user together with everything the user owns, atomically."""
    if _is_protected(user_id):
        raise ProtectedAccountError('Cannot delete main admin user')
    user = get_user(user_id)
    if user is None:
        raise NotFoundError('User not found')
    try:
        removed_products = db.session.execute(delete(Product).where(Product.owner_id == user_id)).rowcount
        removed_videos = db.session.execute(
            delete(YoutubeResource).where(YoutubeResource.owner_id == user_id)).rowcount
        db.session.delete(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(f"Deleting user {user_id} failed, nothing was removed")
        raise
    logger.info(f"Deleted user {user_id} with {removed_products} products and {removed_videos} videos")


# --- Contact messages ---

def list_contact_messages():
    stmt = select(ContactMessage).order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
    return db.session.scalars(stmt).all()


def create_contact_message(name, email, message):
    row = ContactMessage(name=name, email=email, message=message, is_read=False)
    db.session.add(row)
    _commit()
    return row


def mark_message_as_read(message_id):
    row = db.session.get(ContactMessage, message_id)
    if row is None:
        raise NotFoundError('Message not found')
    if not row.is_read:
        row.is_read = True
        _commit()
    return row


# --- Orders and seller inbox ---

def create_order(order_fields, notification=None):
    order = Order(**order_fields)
    db.session.add(order)
    if notification is not None:
        db.session.add(SellerMessage(order_id=order.order_id, seller_id=order.seller_id, **notification))
    _commit('Order could not be recorded')
    return order


def _orders_for(caller):
    stmt = select(Order)
    if not caller.is_super_admin:
        stmt = stmt.where(Order.seller_id == caller.user_id)
    return stmt


def list_orders(caller):
    return db.session.scalars(_orders_for(caller).order_by(Order.created_at.desc(), Order.id.desc())).all()


def update_order_status(order_id, status, caller):
    order = db.session.scalars(_orders_for(caller).where(Order.order_id == order_id)).first()
    if order is None:
        raise NotFoundError('Order not found')
    order.status = status
    _commit()
    return order


def list_seller_messages(caller):
    stmt = (select(SellerMessage)
            .where(SellerMessage.seller_id == caller.user_id)
            .order_by(SellerMessage.created_at.desc(), SellerMessage.id.desc()))
    return db.session.scalars(stmt).all()


def unread_message_count(caller):
    stmt = (select(func.count(SellerMessage.id))
            .where(SellerMessage.seller_id == caller.user_id, SellerMessage.is_read.is_(False)))
    return db.session.scalar(stmt) or 0


def mark_seller_message_as_read(message_id, caller):
    stmt = select(SellerMessage).where(SellerMessage.id == message_id, SellerMessage.seller_id == caller.user_id)
    row = db.session.scalars(stmt).first()
    if row is None:
        raise NotFoundError('Message not found')
    if not row.is_read:
        row.is_read = True
        _commit()
    return row


# --- Announcements ---

def list_announcements(active_only=False):
    stmt = select(Announcement)
    if active_only:
        now = datetime.utcnow()
        stmt = stmt.where(
            Announcement.is_active.is_(True),
            or_(Announcement.expires_at.is_(None), Announcement.expires_at > now),
        )
    stmt = stmt.order_by(Announcement.priority.desc(), Announcement.created_at.desc(), Announcement.id.desc())
    return db.session.scalars(stmt).all()


def create_announcement(data, caller):
    row = Announcement(created_by=caller.user_id, **data)
    db.session.add(row)
    _commit()
    return row


def update_announcement(announcement_id, data):
    row = db.session.get(Announcement, announcement_id)
    if row is None:
        raise NotFoundError('Announcement not found')
    for key, value in data.items():
        setattr(row, key, value)
    _commit()
    return row


def delete_announcement(announcement_id):
    row = db.session.get(Announcement, announcement_id)
    if row is None:
        raise NotFoundError('Announcement not found')
    db.session.delete(row)
    _commit()
