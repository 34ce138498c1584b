"""Implementation of the SIP requests of a user agent client, with digest authentication."""

from .builder import *
from .digest import *
from .headers import *
from .messages import *
