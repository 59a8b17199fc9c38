from flask_wtf import FlaskForm
from werkzeug.datastructures import ImmutableMultiDict
from wtforms import (
    BooleanField,
    DateTimeField,
    DecimalField,
    IntegerField,
    PasswordField,
    SelectField,
    SelectMultipleField,
    StringField,
    TextAreaField,
)
from wtforms.validators import (
    URL,
    AnyOf,
    DataRequired,
    Email,
    InputRequired,
    Length,
    NumberRange,
    Optional,
    Regexp,
)

from errors import ValidationFailed
from models import OrderStatus, Permission, Role
from payments import PAYMENT_METHODS, PAYMENT_PLANS

USERNAME_RE = r'^[\w.@+-]+$'
PHONE_RE = r'^\+?[\d\s-]{7,20}$'
YOUTUBE_CATEGORIES = ('tutorials', 'reviews', 'gaming', 'files')
DATETIME_FORMATS = ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d']


def strip(value):
    return value.strip() if isinstance(value, str) else value


def _as_form_value(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


class ApiForm(FlaskForm):
    """FlaskForm fed from a JSON body instead of request.form.

    CSRF is enforced app-wide by CSRFProtect, so the per-form token is off.
    """

    class Meta:
        csrf = False

    submitted = frozenset()

    @classmethod
    def from_json(cls, payload, **kwargs):
        data = {}
        for key, value in (payload if isinstance(payload, dict) else {}).items():
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                data[key] = [_as_form_value(item) for item in value]
            else:
                data[key] = _as_form_value(value)
        form = cls(formdata=ImmutableMultiDict(data), **kwargs)
        form.submitted = frozenset(key for key in data if key in form._fields)
        return form

    def validate_partial(self):
        """Validate only the fields present in the body (PUT semantics)."""
        success = True
        for name, field in self._fields.items():
            if name not in self.submitted:
                continue
            inline = getattr(self.__class__, f'validate_{name}', None)
            extra = [inline] if inline is not None else []
            if not field.validate(self, extra):
                success = False
        return success

    def field_errors(self):
        return {name: list(field.errors) for name, field in self._fields.items() if field.errors}

    def require_valid(self, partial=False):
        valid = self.validate_partial() if partial else self.validate()
        if not valid:
            raise ValidationFailed(errors=self.field_errors())
        return self

    def submitted_data(self):
        return {name: self._fields[name].data for name in self.submitted}


class LoginForm(ApiForm):
    username = StringField('Username', filters=[strip], validators=[
        DataRequired(message="This field is required"),
        Length(min=3, max=150, message="Username must be between 3 and 150 characters"),
        Regexp(USERNAME_RE, message="Username may only contain letters, digits and . @ + - _")
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message="This field is required")
    ])
    # Honeypot field - should be left empty by humans
    honeypot = StringField('Middle Name', validators=[Length(max=0, message="Bot detected")])


class ProductForm(ApiForm):
    name = StringField('Name', filters=[strip], validators=[DataRequired(), Length(max=255)])
    description = TextAreaField('Description', validators=[Optional()])
    price = DecimalField('Price', places=2, validators=[InputRequired(), NumberRange(min=0)])
    currency = StringField('Currency', filters=[strip], validators=[Optional(), Length(min=3, max=3)])
    category = StringField('Category', filters=[strip], validators=[DataRequired(), Length(max=50)])
    image_url = StringField('Image URL', filters=[strip], validators=[Optional(), Length(max=500)])
    video_url = StringField('Video URL', filters=[strip], validators=[Optional(), Length(max=500)])
    purchase_link = StringField('Purchase link', filters=[strip], validators=[Optional(), Length(max=500)])
    is_active = BooleanField('Active')


class YoutubeResourceForm(ApiForm):
    title = StringField('Title', filters=[strip], validators=[DataRequired(), Length(max=255)])
    description = TextAreaField('Description', validators=[Optional()])
    youtube_url = StringField('YouTube URL', filters=[strip], validators=[DataRequired(), URL(), Length(max=500)])
    thumbnail_url = StringField('Thumbnail URL', filters=[strip], validators=[Optional(), URL(), Length(max=500)])
    category = StringField('Category', filters=[strip], validators=[
        DataRequired(),
        AnyOf(YOUTUBE_CATEGORIES, message="Category must be one of: %(values)s"),
    ])
    duration = StringField('Duration', validators=[Optional(), Length(max=20)])
    views = StringField('Views', validators=[Optional(), Length(max=50)])
    is_active = BooleanField('Active')


class ContactMessageForm(ApiForm):
    name = StringField('Name', filters=[strip], validators=[DataRequired(), Length(max=255)])
    email = StringField('Email', filters=[strip], validators=[DataRequired(), Email(), Length(max=255)])
    message = TextAreaField('Message', filters=[strip], validators=[DataRequired(), Length(max=5000)])


class GoogleLoginForm(ApiForm):
    # Firebase ID token; uid and email are read from its verified claims
    id_token = StringField('ID token', validators=[DataRequired(), Length(max=4096)])


class SellerRegistrationForm(ApiForm):
    id_token = StringField('ID token', validators=[DataRequired(), Length(max=4096)])
    username = StringField('Username', filters=[strip], validators=[
        DataRequired(), Length(min=3, max=150), Regexp(USERNAME_RE)
    ])
    first_name = StringField('First name', validators=[Optional(), Length(max=100)])
    last_name = StringField('Last name', validators=[Optional(), Length(max=100)])
    profile_image_url = StringField('Profile image', validators=[Optional(), Length(max=500)])
    store_name = StringField('Store name', filters=[strip], validators=[DataRequired(), Length(max=150)])
    store_description = TextAreaField('Store description', validators=[Optional()])
    phone_number = StringField('Phone', filters=[strip], validators=[DataRequired(), Regexp(PHONE_RE)])
    address = TextAreaField('Address', validators=[Optional()])
    city = StringField('City', validators=[Optional(), Length(max=100)])
    state = StringField('State', validators=[Optional(), Length(max=100)])
    country = StringField('Country', validators=[Optional(), Length(max=100)])
    pincode = StringField('Pincode', validators=[Optional(), Length(max=20)])
    business_type = StringField('Business type', validators=[Optional(), Length(max=50)])
    gst_number = StringField('GST number', validators=[Optional(), Length(max=20)])
    pan_number = StringField('PAN number', validators=[Optional(), Length(max=20)])
    bank_account_number = StringField('Bank account', validators=[Optional(), Length(max=30)])
    bank_ifsc_code = StringField('IFSC code', validators=[Optional(), Length(max=20)])
    bank_name = StringField('Bank name', validators=[Optional(), Length(max=100)])
    specialization = TextAreaField('Specialization', validators=[Optional()])
    experience = StringField('Experience', validators=[Optional(), Length(max=50)])
    portfolio = TextAreaField('Portfolio', validators=[Optional()])
    social_media_links = TextAreaField('Social media links', validators=[Optional()])


class UserCreateForm(ApiForm):
    username = StringField('Username', filters=[strip], validators=[
        DataRequired(), Length(min=3, max=150), Regexp(USERNAME_RE)
    ])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6, max=128)])
    email = StringField('Email', filters=[strip], validators=[Optional(), Email(), Length(max=150)])
    first_name = StringField('First name', validators=[Optional(), Length(max=100)])
    last_name = StringField('Last name', validators=[Optional(), Length(max=100)])
    role = SelectField('Role', default=Role.USER.value, choices=[
        (role.value, role.value) for role in (Role.USER, Role.SELLER, Role.ADMIN)
    ])


class PermissionsForm(ApiForm):
    permissions = SelectMultipleField('Permissions', choices=[
        (permission.value, permission.value) for permission in Permission
    ])


class PaymentForm(ApiForm):
    product_id = StringField('Product', filters=[strip], validators=[
        DataRequired(), Regexp(r'^[A-Z]{3}-\d{3,}$', message="Unknown product code format")
    ])
    payment_method = SelectField('Payment method', choices=[(method, method) for method in PAYMENT_METHODS])
    payment_option = SelectField('Payment option', default='immediate', choices=[
        (option, option) for option in PAYMENT_PLANS
    ])
    customer_name = StringField('Name', filters=[strip], validators=[DataRequired(), Length(max=255)])
    customer_phone = StringField('Phone', filters=[strip], validators=[DataRequired(), Regexp(PHONE_RE)])
    customer_email = StringField('Email', filters=[strip], validators=[Optional(), Email(), Length(max=255)])
    customer_address = TextAreaField('Address', validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=2000)])


class OrderStatusForm(ApiForm):
    status = SelectField('Status', choices=[(status.value, status.value) for status in OrderStatus])


class AnnouncementForm(ApiForm):
    title = StringField('Title', filters=[strip], validators=[DataRequired(), Length(max=255)])
    content = TextAreaField('Content', validators=[DataRequired()])
    type = SelectField('Type', default='info', choices=[
        (kind, kind) for kind in ('info', 'warning', 'success', 'error')
    ])
    is_active = BooleanField('Active')
    priority = IntegerField('Priority', validators=[Optional()])
    expires_at = DateTimeField('Expires at', format=DATETIME_FORMATS, validators=[Optional()])


class ChatForm(ApiForm):
    message = TextAreaField('Message', filters=[strip], validators=[DataRequired(), Length(max=2000)])
