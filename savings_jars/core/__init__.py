"""Core package: provides models, errors, the defaults database, settings, and shared utilities."""

from .errors import SavingsJarError  # noqa: F401
from .models import Jar, JarColor, Transaction, WidgetJar, WidgetSnapshot  # noqa: F401
from .settings import Settings, get_settings  # noqa: F401
from .utils import get_logger  # noqa: F401
