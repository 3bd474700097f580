"""
                Unified Order Service

Order lifecycle state machine and real-time event distribution for the
restaurant platform: customer app -> restaurant dashboard -> rider network.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
