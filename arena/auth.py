from functools import wraps

from flask import current_app, jsonify
from flask_login import LoginManager, UserMixin, current_user

login_manager = LoginManager()

# Set by the identity provider's gateway after it has authenticated the caller
USER_ID_HEADER = 'X-User-Id'
USER_EMAIL_HEADER = 'X-User-Email'
USER_NAME_HEADER = 'X-User-Name'


class Identity(UserMixin):
    def __init__(self, user_id: str, email: str = None, display_name: str = None, is_admin: bool = False):
        self.id = user_id
        self.email = email
        self.display_name = display_name
        self.is_admin = is_admin

    def get_id(self):
        return self.id

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'display_name': self.display_name,
            'is_admin': self.is_admin,
        }


@login_manager.request_loader
def load_identity(request):
    user_id = (request.headers.get(USER_ID_HEADER) or '').strip()
    if not user_id:
        return None

    return Identity(
        user_id=user_id,
        email=request.headers.get(USER_EMAIL_HEADER),
        display_name=request.headers.get(USER_NAME_HEADER),
        is_admin=user_id in current_app.config.get('ADMIN_USER_IDS', set())
    )


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Authentication required', 'kind': 'not_allowed'}), 401


def admin_required(view):
    """Like login_required, and the caller must be a tournament administrator."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        if not current_user.is_admin:
            return jsonify({'error': 'Administrator access required', 'kind': 'not_allowed'}), 403
        return view(*args, **kwargs)
    return wrapper
