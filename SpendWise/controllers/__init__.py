from .user import *
from .admin import *
from .password_reset import *
from .auth import *
from .initialize import *
