"""
Authentication forms using Flask-WTF.
Accepts form posts and JSON bodies; CSRF is enforced when enabled.
"""

from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import DataRequired, Email, Length, EqualTo, Optional, Regexp


class LoginForm(FlaskForm):
    """Login form with username and password."""

    username = StringField('Username', validators=[
        DataRequired(message='Username is required')
    ])

    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required')
    ])

    remember_me = BooleanField('Remember me')


class RegistrationForm(FlaskForm):
    """Self-registration form. New accounts wait for admin approval."""

    username = StringField('Username', validators=[
        DataRequired(message='Username is required'),
        Length(min=3, max=50, message='Username must be 3 to 50 characters')
    ])

    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Enter a valid email address.')
    ])

    full_name = StringField('Full name', validators=[
        DataRequired(message='Full name is required'),
        Length(max=200)
    ])

    contact_number = StringField('Contact number', validators=[
        Optional(),
        Regexp(r'^09\d{9}$', message='Contact number must be 11 digits and start with 09.')
    ])

    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required'),
        Length(min=6, message='Password must be at least 6 characters')
    ])

    confirm_password = PasswordField('Confirm password', validators=[
        DataRequired(message='Please confirm the password'),
        EqualTo('password', message='Passwords do not match')
    ])
