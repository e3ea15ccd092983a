"""
                Hotel Bill Manager

Billing backend for a hotel restaurant: administrators manage the
menu catalog, staff compose carts and issue bills, and every signed-in
user can browse the bill history.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
