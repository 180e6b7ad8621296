from .auth import CommerceAuthManager
from .client import CommerceClient
from .custom_objects import CustomObjectStore
