"""Conformance tester for isucoin-style exchange web services."""

from .bank import IsubankClient
from .client import ExchangeClient
from .config import load_config, TesterConfiguration
from .convergence import wait_until
from .errors import (
    CheckFailed,
    CollaboratorError,
    ConvergenceTimeout,
    ErrorWithStatus,
    RetiredError,
    TesterError,
)
from .isulog import IsulogClient, filter_logs
from .tester import PreTester, PostTester

__all__ = [
    'IsubankClient',
    'ExchangeClient',
    'IsulogClient',
    'PreTester',
    'PostTester',
    'TesterConfiguration',
    'load_config',
    'wait_until',
    'filter_logs',
    'TesterError',
    'CheckFailed',
    'ConvergenceTimeout',
    'CollaboratorError',
    'ErrorWithStatus',
    'RetiredError',
]
