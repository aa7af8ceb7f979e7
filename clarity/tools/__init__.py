"""
Tools package initialization
"""

__version__ = '1.0.0'
__author__ = 'Clarity Team'

from .utils import Logger
from .cancellation import CancellationToken, run_cancellable

__all__ = ['Logger', 'CancellationToken', 'run_cancellable']
