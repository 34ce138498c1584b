"""Implementation of Session Description Protocol (SDP) answers for audio calls."""

from .common import *
from .media import *
from .negotiation import *
from .session import *
