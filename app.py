"""
TourDesk - Travel & Tours Facility Reservation Service
Flask application factory and initialization
"""

import os
import click
import logging
from flask import Flask, g
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import extensions
from extensions import login_manager, csrf

# Import database functions
from database import close_db, init_db, get_db

from utils.api_response import api_error
from utils.messages import MESSAGES


def create_app(config_name=None):
    """
    Application factory for Flask app.

    Args:
        config_name: Configuration name ('development', 'production', 'test')

    Returns:
        Flask application instance
    """
    # Determine config
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    if config_name == 'production':
        config_class.validate()
    app.config.from_object(config_class)

    # Initialize extensions
    initialize_extensions(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register teardown handlers
    register_teardown_handlers(app)

    # Configure logging
    configure_logging(app)

    return app


def initialize_extensions(app):
    """Initialize Flask extensions."""
    # Initialize Flask-Login
    login_manager.init_app(app)
    # Initialize CSRF Protection
    csrf.init_app(app)


def register_blueprints(app):
    """Register Flask blueprints."""
    # Import blueprints
    from blueprints.auth.routes import auth_bp
    from blueprints.admin.routes import admin_bp
    from blueprints.api.routes import api_bp

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(api_bp, url_prefix='/api')

    @app.route('/')
    def index():
        """Service banner."""
        from flask import jsonify
        return jsonify({
            'app': app.config.get('APP_NAME', 'TourDesk'),
            'version': app.config.get('APP_VERSION', '1.0.0'),
            'health': '/api/health'
        })


def register_error_handlers(app):
    """Register error handlers."""

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 errors."""
        return api_error(MESSAGES['not_found'], 404)

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 errors."""
        return api_error(MESSAGES['invalid_value'], 405)

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        # Rollback database on error
        db = g.get('db')
        if db:
            db.rollback()
        app.logger.error(f'Unhandled error: {error}')
        return api_error(MESSAGES['server_error'], 500)

    @app.errorhandler(403)
    def forbidden_error(error):
        """Handle 403 errors."""
        return api_error(MESSAGES['permission_denied'], 403)

    from flask_wtf.csrf import CSRFError

    @app.errorhandler(CSRFError)
    def csrf_error(error):
        """Handle missing or stale CSRF tokens."""
        return api_error(error.description, 400, error_code='csrf_failed')


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Initialize database with schema and seed data."""
        click.echo('Initializing database...')
        with app.app_context():
            init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-user')
    @click.argument('username')
    @click.argument('email')
    @click.password_option()
    @click.option('--role', type=click.Choice(['user', 'admin', 'master_admin']), default='user',
                  help='Account role')
    @click.option('--approved', is_flag=True, help='Create the account already approved')
    def create_user_command(username, email, password, role, approved):
        """Create a new user."""
        from models.user import create_user

        with app.app_context():
            try:
                user_id = create_user(
                    username=username,
                    email=email,
                    password=password,
                    role=role,
                    approval_status='approved' if approved else 'pending'
                )
                click.echo(f'User created successfully! ID: {user_id}')
            except Exception as e:
                click.echo(f'Error creating user: {str(e)}', err=True)

    @app.cli.command('approve-user')
    @click.argument('username')
    @click.option('--reject', is_flag=True, help='Reject instead of approve')
    def approve_user_command(username, reject):
        """Approve (or reject) a pending user."""
        from models.user import get_user_by_username, set_approval_status

        with app.app_context():
            user = get_user_by_username(username)
            if not user:
                click.echo(f'User not found: {username}', err=True)
                return
            status = 'rejected' if reject else 'approved'
            set_approval_status(user['id'], status)
            click.echo(f'User {username} {status}.')

    @app.cli.command('seed-facilities')
    def seed_facilities_command():
        """Insert the demo facility roster (skips plates already present)."""
        from database import seed_facilities

        with app.app_context():
            db = get_db()
            admin = db.execute(
                "SELECT id FROM users WHERE role = 'master_admin' ORDER BY id LIMIT 1"
            ).fetchone()
            inserted = seed_facilities(db, admin['id'] if admin else None)
            db.commit()
        click.echo(f'Inserted {inserted} facilities.')

    @app.cli.command('sweep-expired')
    def sweep_expired_command():
        """Release reservations whose pickup window has ended."""
        from models.availability import sweep_expired

        with app.app_context():
            released = sweep_expired()
        click.echo(f'Released {released} expired reservation(s).')

    @app.cli.command('check-consistency')
    def check_consistency_command():
        """Verify facility status matches the open reservations."""
        from models.availability import check_consistency

        with app.app_context():
            violations = check_consistency()

        if not violations:
            click.echo('OK: facility status and reservations are consistent.')
            return

        for violation in violations:
            click.echo(f'VIOLATION: {violation}', err=True)
        raise SystemExit(1)


def register_teardown_handlers(app):
    """Register teardown handlers."""

    @app.teardown_appcontext
    def teardown_db(error):
        """Close database connection at end of request."""
        close_db(error)


def configure_logging(app):
    """Configure application logging."""
    if not app.debug and not app.testing:
        # Production logging
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/tourdesk.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        # Model-layer loggers (reservations, sweeps, audit) share the file
        logging.getLogger('models').addHandler(file_handler)
        logging.getLogger('models').setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('TourDesk startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    # host='0.0.0.0' allows access from other devices on the network
    app.run(host='0.0.0.0', debug=True)
