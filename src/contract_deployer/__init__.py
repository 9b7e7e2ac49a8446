#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Contract Deployer

Bootstraps a funded wallet from a seed, wires it to the indexer, node and
proof server, deploys the contract once and records the result in a
deployment manifest.
"""

__version__ = "0.1.0"
