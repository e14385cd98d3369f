"""
Gateway Ingress - service integration layer

Startup configuration loading and the resilient call policy used for RPC
calls to downstream services.
"""

__version__ = "0.1.0"
