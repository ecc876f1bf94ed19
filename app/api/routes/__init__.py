from .auth import router as auth_router
from .users import router as users_router
from .collectibles import router as collectibles_router
from .bids import router as bids_router
from .websocket import router as websocket_router
