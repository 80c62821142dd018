from flask_wtf import FlaskForm
from sqlalchemy import func
from wtforms import BooleanField, PasswordField, StringField, SubmitField
from wtforms.validators import Email, EqualTo, InputRequired, Length, Regexp, ValidationError

from ..models import User

PEN_NAME_PATTERN = r"^[\w][\w .'-]*$"


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class RegistrationForm(FlaskForm):
    """Sign-up form for authors; the pen name is how the studio greets them."""

    display_name = StringField(
        "Pen name",
        filters=[_strip],
        validators=[
            InputRequired(),
            Length(min=2, max=120),
            Regexp(PEN_NAME_PATTERN, message="Pen names use letters, digits, spaces, dots, apostrophes and hyphens."),
        ],
    )
    email = StringField("Email", filters=[_strip], validators=[InputRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[InputRequired(), Length(min=8, max=128)])
    confirm_password = PasswordField(
        "Repeat password",
        validators=[InputRequired(), EqualTo("password", message="Passwords must match.")],
    )
    submit = SubmitField("Create author account")

    def validate_email(self, field: StringField) -> None:
        if User.query.filter_by(email=field.data.lower()).first():
            raise ValidationError("An author with that email already exists.")

    def validate_display_name(self, field: StringField) -> None:
        taken = User.query.filter(func.lower(User.display_name) == field.data.lower()).first()
        if taken:
            raise ValidationError("Another author already writes under that pen name.")


class LoginForm(FlaskForm):
    email = StringField("Email", filters=[_strip], validators=[InputRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[InputRequired()])
    remember = BooleanField("Keep me signed in on this device")
    submit = SubmitField("Open the studio")
