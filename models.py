import enum
from datetime import datetime

from flask_bcrypt import Bcrypt
from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import declared_attr

db = SQLAlchemy()
bcrypt = Bcrypt()


class Role(str, enum.Enum):
    USER = 'user'
    SELLER = 'seller'
    ADMIN = 'admin'
    SUPER_ADMIN = 'super_admin'


class Permission(str, enum.Enum):
    ADMIN = 'admin'
    MANAGE_ANNOUNCEMENTS = 'manage_announcements'


class Lifecycle(str, enum.Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class OrderStatus(str, enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


def _values(enum_cls):
    return [member.value for member in enum_cls]


def _enum_column(enum_cls, default):
    return db.Column(
        db.Enum(enum_cls, values_callable=_values, native_enum=False, length=20),
        default=default,
        nullable=False,
    )


def _isoformat(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(128), primary_key=True)  # provider uid or chosen username
    username = db.Column(db.String(150), unique=True, nullable=True)
    password_hash = db.Column(db.String(150), nullable=True)  # Google-only accounts have none
    email = db.Column(db.String(150), unique=True, nullable=True)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    profile_image_url = db.Column(db.String(500))
    google_id = db.Column(db.String(128), unique=True, nullable=True)
    role = _enum_column(Role, Role.USER)
    is_verified = db.Column(db.Boolean, default=False)

    # Seller profile
    store_name = db.Column(db.String(150))
    store_description = db.Column(db.Text)
    phone_number = db.Column(db.String(20))
    address = db.Column(db.Text)
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    country = db.Column(db.String(100), default='India')
    pincode = db.Column(db.String(20))
    business_type = db.Column(db.String(50))
    gst_number = db.Column(db.String(20))
    pan_number = db.Column(db.String(20))
    bank_account_number = db.Column(db.String(30))
    bank_ifsc_code = db.Column(db.String(20))
    bank_name = db.Column(db.String(100))
    specialization = db.Column(db.Text)
    experience = db.Column(db.String(50))
    portfolio = db.Column(db.Text)
    social_media_links = db.Column(db.Text)  # JSON string of links, as sent by the client

    permissions = db.Column(db.JSON, default=list)
    average_rating = db.Column(db.Numeric(3, 2), default=0)
    total_sales = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True)  # inactive accounts cannot log in
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, raw):
        self.password_hash = bcrypt.generate_password_hash(raw).decode('utf-8')

    def check_password(self, raw):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, raw)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'profile_image_url': self.profile_image_url,
            'role': self.role.value if self.role else Role.USER.value,
            'is_verified': bool(self.is_verified),
            'store_name': self.store_name,
            'store_description': self.store_description,
            'phone_number': self.phone_number,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'country': self.country,
            'pincode': self.pincode,
            'business_type': self.business_type,
            'specialization': self.specialization,
            'experience': self.experience,
            'portfolio': self.portfolio,
            'social_media_links': self.social_media_links,
            'permissions': sorted(self.permissions or []),
            'average_rating': str(self.average_rating or 0),
            'total_sales': self.total_sales or 0,
            'is_active': bool(self.is_active),
            'last_login_at': _isoformat(self.last_login_at),
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<User {self.id}>'


class OwnedMixin:
    """Columns shared by catalogue rows that belong to a single owner."""

    status = _enum_column(Lifecycle, Lifecycle.ACTIVE)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @declared_attr
    def owner_id(cls):
        return db.Column(db.String(128), db.ForeignKey('users.id'), nullable=False, index=True)

    @hybrid_property
    def is_active(self):
        return self.status == Lifecycle.ACTIVE

    @is_active.setter
    def is_active(self, value):
        self.status = Lifecycle.ACTIVE if value else Lifecycle.INACTIVE


class Product(OwnedMixin, db.Model):
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(20), unique=True, nullable=False)  # e.g. MCG-001, never reissued
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), default='INR')
    category = db.Column(db.String(50), nullable=False, index=True)
    image_url = db.Column(db.String(500))
    video_url = db.Column(db.String(500))
    purchase_link = db.Column(db.String(500))

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'name': self.name,
            'description': self.description,
            'price': f'{self.price:.2f}',
            'currency': self.currency,
            'category': self.category,
            'image_url': self.image_url,
            'video_url': self.video_url,
            'purchase_link': self.purchase_link,
            'is_active': self.is_active,
            'owner_id': self.owner_id,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Product {self.product_id}>'


class YoutubeResource(OwnedMixin, db.Model):
    __tablename__ = 'youtube_resources'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    youtube_url = db.Column(db.String(500), nullable=False)
    thumbnail_url = db.Column(db.String(500))
    category = db.Column(db.String(50), nullable=False, index=True)
    duration = db.Column(db.String(20))  # e.g. "12:45"
    views = db.Column(db.String(50))  # e.g. "125K views"

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'youtube_url': self.youtube_url,
            'thumbnail_url': self.thumbnail_url,
            'category': self.category,
            'duration': self.duration,
            'views': self.views,
            'is_active': self.is_active,
            'owner_id': self.owner_id,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<YoutubeResource {self.id}>'


class ProductSequence(db.Model):
    __tablename__ = 'product_sequences'

    prefix = db.Column(db.String(3), primary_key=True)
    last_value = db.Column(db.Integer, nullable=False, default=0)


class ContactMessage(db.Model):
    __tablename__ = 'contact_messages'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'message': self.message,
            'is_read': bool(self.is_read),
            'created_at': _isoformat(self.created_at),
        }


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(32), unique=True, nullable=False)
    product_id = db.Column(db.String(20), nullable=False)  # product code, not the row id
    seller_id = db.Column(db.String(128), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=False)
    customer_email = db.Column(db.String(255))
    customer_address = db.Column(db.Text)
    payment_method = db.Column(db.String(20), nullable=False)  # upi, card, netbanking, cod
    payment_option = db.Column(db.String(20), nullable=False)  # immediate, emi_3, emi_6, emi_12, advance_booking
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = _enum_column(OrderStatus, OrderStatus.PENDING)
    transaction_id = db.Column(db.String(64))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'product_id': self.product_id,
            'seller_id': self.seller_id,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'customer_email': self.customer_email,
            'customer_address': self.customer_address,
            'payment_method': self.payment_method,
            'payment_option': self.payment_option,
            'amount': f'{self.amount:.2f}',
            'total_amount': f'{self.total_amount:.2f}',
            'status': self.status.value if self.status else OrderStatus.PENDING.value,
            'transaction_id': self.transaction_id,
            'notes': self.notes,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }


class SellerMessage(db.Model):
    __tablename__ = 'seller_messages'

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.String(128), nullable=False, index=True)
    order_id = db.Column(db.String(32))
    message_type = db.Column(db.String(30), nullable=False)  # order_notification, customer_inquiry, system_message
    subject = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    customer_info = db.Column(db.JSON)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    priority = db.Column(db.String(10), default='normal')  # low, normal, high, urgent
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'seller_id': self.seller_id,
            'order_id': self.order_id,
            'message_type': self.message_type,
            'subject': self.subject,
            'content': self.content,
            'customer_info': self.customer_info,
            'is_read': bool(self.is_read),
            'priority': self.priority,
            'created_at': _isoformat(self.created_at),
        }


class Announcement(db.Model):
    __tablename__ = 'announcements'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(10), default='info')  # info, warning, success, error
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    priority = db.Column(db.Integer, default=0)  # higher shows first
    expires_at = db.Column(db.DateTime)
    created_by = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'type': self.type,
            'is_active': bool(self.is_active),
            'priority': self.priority or 0,
            'expires_at': _isoformat(self.expires_at),
            'created_by': self.created_by,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }
