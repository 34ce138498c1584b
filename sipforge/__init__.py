"""sipforge builds SIP requests, answers digest challenges and negotiates SDP audio."""

from ._package_metadata import get_metadata as _metadata


__title__ = _metadata("Name", ["project", "name"])
__description__ = _metadata("Summary", ["project", "description"])
__url__ = _metadata("Home-page", ["project", "urls", "Homepage"])
__author__ = _metadata("Author", ["project", "authors", 0, "name"])
__author_email__ = _metadata("Author-email", ["project", "authors", 0, "email"])
__version__ = _metadata("Version", ["project", "version"])
__license__ = _metadata("License", ["project", "license", "text"])


from .exceptions import *
from .structures import *
from .sdp.negotiation import MediaNegotiator, MediaOffer, negotiate
from .sip.builder import (
    SIPMessageBuilder,
    augment_with_authorization,
    build_bye,
    build_invite,
    build_register,
)
from .sip.digest import AuthChallenge, AuthCredentials, DigestAuthenticator
