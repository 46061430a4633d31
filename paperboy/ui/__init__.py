"""UI-thread session objects that views bind to."""

from paperboy.ui.discovery_controller import DiscoveryController
from paperboy.ui.location_session import LocationSession
