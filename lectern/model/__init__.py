"""Model base class, its metaclass and row hydration."""

from .base import Model
from .hydratable import Hydratable, cast_value
from .meta import ModelMeta
