"""Session Sync Meta information.
   Session Sync moves browser session state between machines through
   an untrusted store, encrypted end to end.
"""
__title__ = 'session_sync'
__description__ = (
   'Session Sync moves browser cookies and storage between machines '
   'through an untrusted store, encrypted end to end.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/session-sync'
