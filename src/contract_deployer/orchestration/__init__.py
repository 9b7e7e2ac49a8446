#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Orchestration Package

Sequences the deployment pipeline: wallet bootstrap, provider configuration,
contract deployment, manifest recording and the serving wait.
"""
