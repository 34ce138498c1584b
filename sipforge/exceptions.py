"""Exception classes for the sipforge library."""

from __future__ import annotations


__all__ = [
    "SipForgeException",
    "ParseError",
    "SIPException",
    "SIPParseError",
    "SIPUnsupportedVersion",
    "SIPAuthenticationError",
    "MalformedChallenge",
    "UnsupportedQoP",
    "UnsupportedAlgorithm",
    "SDPException",
    "SDPParseError",
    "NoCompatibleMedia",
]


class SipForgeException(Exception):
    """Base class for all custom library exceptions."""


class ParseError(SipForgeException, ValueError):
    """Raised when a value cannot be parsed."""


class SIPException(SipForgeException):
    """Base class for all exceptions raised by the SIP module."""


class SIPParseError(SIPException, ParseError):
    """Exceptions related to SIP headers / data parsing."""


class SIPUnsupportedVersion(SIPException, NotImplementedError):
    """The SIP version is not supported by this library."""


class SIPAuthenticationError(SIPException):
    """Base class for errors while answering an authentication challenge."""


class MalformedChallenge(SIPAuthenticationError, ValueError):
    """Raised when a challenge lacks a realm or a nonce."""


class UnsupportedQoP(SIPAuthenticationError, NotImplementedError):
    """Raised when a challenge asks for a quality of protection other than ``auth``."""


class UnsupportedAlgorithm(SIPAuthenticationError, NotImplementedError):
    """Raised when a challenge asks for a digest algorithm other than ``MD5``."""


class SDPException(SipForgeException):
    """Base class for all exceptions raised by the SDP module."""


class SDPParseError(SDPException, ParseError):
    """Exceptions related to SDP fields parsing."""


class NoCompatibleMedia(SDPException):
    """Raised when an SDP offer has no media line this library can answer."""
