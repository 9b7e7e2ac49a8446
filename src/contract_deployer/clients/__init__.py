#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Remote Service Clients

HTTP clients for the funding source, proof server and ledger node.
"""


class MalformedResponseError(ValueError):
    """Exception raised when a service answers with a body it should not send."""
    pass
