"""Signer Keystore Meta information.
   Signer Keystore persists encrypted private keys for a signing service.
"""
__title__ = 'signer_keystore'
__description__ = (
   'Signer Keystore persists private keys encrypted at rest '
   'under rotatable passphrases.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/signer-keystore'
