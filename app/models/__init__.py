from .user import User
from .bid import Bid
from .collectible import Collectible
