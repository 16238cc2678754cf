from .health import health_bp
from .advertisements import advertisements_bp
from .home_banner import home_banner_bp
from .admin import admin_bp
