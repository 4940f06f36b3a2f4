"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limit — we apply per-route
    storage_uri="memory://",
)


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID from session. Imports lazily to avoid circular deps."""
    from app.models.user import User

    user = db.session.get(User, user_id)
    if user is None or not user.logged:
        return None
    return user


def _anonymous_user():
    """Visitors are represented by the persisted anonymous sentinel."""
    from app.models.user import User

    return User.anonymous()


# current_user is always a User row, so permission checks work for visitors.
login_manager.anonymous_user = _anonymous_user
