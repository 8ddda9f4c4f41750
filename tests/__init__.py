# SPDX-License-Identifier: Apache-2.0
"""
vectorkit test suite.

Tests are grouped by layer: resilience primitives, middleware, providers,
and the client surface (batch, streaming, configuration).
"""
