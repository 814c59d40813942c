from .user import *
from .admin import *
from .password_reset import *
