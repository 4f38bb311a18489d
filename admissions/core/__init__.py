#!/usr/bin/env python

"""
    Core module for Admissions: persistence, ranking and the waitlist API

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""
