# backend/trials/models/__init__.py

from .section import Section  # noqa: F401
from .trial_class import TrialClass, ClassSection  # noqa: F401
from .competitor import Competitor, competitor_classes  # noqa: F401
from .attempt import Attempt, PENALTY_VALUES  # noqa: F401
from .event_settings import EventSettings  # noqa: F401
