"""
Authentication routes: login, logout, registration.
JSON responses only; the browser or sync client keeps the session cookie.
"""

import sqlite3

from flask import Blueprint, current_app
from flask_login import login_user, logout_user, login_required, current_user

from blueprints.auth.forms import LoginForm, RegistrationForm
from blueprints.admin.services import validate_user_creation
from models.user import User, get_user_by_username, update_last_login, check_password, create_user
from utils.api_response import api_success, api_error
from utils.audit import log_audit
from utils.messages import MESSAGES

auth_bp = Blueprint('auth', __name__)


def _first_form_error(form) -> str:
    for errors in form.errors.values():
        if errors:
            return errors[0]
    return MESSAGES['invalid_value']


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log in with username and password.

    Request body (form or JSON):
        username, password, remember_me (optional)

    Returns:
        JSON with the logged-in user
    """
    form = LoginForm()

    if not form.validate_on_submit():
        return api_error(_first_form_error(form), 400)

    user_dict = get_user_by_username(form.username.data)

    if user_dict is None or not check_password(user_dict, form.password.data):
        current_app.logger.info('Failed login for %s', form.username.data)
        return api_error(MESSAGES['invalid_credentials'], 401)

    if not user_dict.get('active'):
        return api_error(MESSAGES['account_disabled'], 403)

    user = User(user_dict)
    login_user(user, remember=form.remember_me.data)
    update_last_login(user.id)

    return api_success(
        data=user.to_dict(),
        message=MESSAGES['login_success'].format(name=user.full_name or user.username)
    )


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Logout current user."""
    logout_user()
    return api_success(message=MESSAGES['logout_success'])


@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Register a new end-user account.

    The account starts as 'pending' and cannot reserve until an
    administrator approves it.

    Request body (form or JSON):
        username, email, full_name, contact_number (optional),
        password, confirm_password
    """
    if current_user.is_authenticated:
        return api_error(MESSAGES['already_logged_in'], 400)

    form = RegistrationForm()

    if not form.validate_on_submit():
        return api_error(_first_form_error(form), 400)

    valid, error = validate_user_creation(form.username.data, form.email.data, form.password.data)
    if not valid:
        return api_error(error, 400)

    try:
        user_id = create_user(
            username=form.username.data.strip(),
            email=form.email.data.strip(),
            password=form.password.data,
            full_name=form.full_name.data.strip(),
            contact_number=form.contact_number.data or None
        )
    except sqlite3.IntegrityError:
        # Lost a race with a concurrent registration
        return api_error(MESSAGES['username_taken'], 409)

    log_audit(action='REGISTER', entity_type='user', entity_id=user_id,
              after={'username': form.username.data, 'approval_status': 'pending'},
              user_id=user_id)
    current_app.logger.info('Registered user %s (id %s), awaiting approval',
                            form.username.data, user_id)

    return api_success(
        data={'id': user_id, 'approval_status': 'pending'},
        message=MESSAGES['registration_pending'],
        status=201
    )
