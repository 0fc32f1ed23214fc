"""
PIN Block Zone Service

ISO 9564-1 Format 0 PIN blocks carried over an RSA-OAEP transport layer and
encrypted under a symmetric zone key (AES-256-ECB or Triple DES ECB).
"""

__version__ = "1.0.0"
