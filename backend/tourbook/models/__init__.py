from tourbook.models.user import User
from tourbook.models.tour import Tour, tour_guides
from tourbook.models.review import Review
from tourbook.models.booking import Booking

__all__ = ["User", "Tour", "tour_guides", "Review", "Booking"]
