#!/usr/bin/env python

"""
    Admissions, the waitlist ranking and position-management engine
    for admissions intake.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

__version__ = '0.1.0'
