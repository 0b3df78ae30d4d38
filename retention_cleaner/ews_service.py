#!/usr/bin/env python3
"""
Exchange Service - Facade for mailbox retention tag operations
Handles connection setup and delegates to specialized classes
"""

import os
import signal
import sys
import logging
from typing import Callable, Dict, List, Optional, Set
from urllib.parse import urlparse

from exchangelib import Account, Configuration, Credentials, DELEGATE, GSSAPI, IMPERSONATION, SSPI
from exchangelib.errors import EWSError
from exchangelib.protocol import BaseProtocol, NoVerifyHTTPAdapter

from retention_cleaner.enumerator import FolderEnumerator
from retention_cleaner.errors import MailboxConnectionError
from retention_cleaner.ews_session import EwsMailboxSession
from retention_cleaner.folder_paths import filter_folders_by_path
from retention_cleaner.models import ConnectionConfig, FolderRef, RemovalConfig, RunSummary
from retention_cleaner.remover import TagRemover


logger = logging.getLogger(__name__)


class ExchangeService:
    """Facade for mailbox operations - handles connection and delegates to specialized classes"""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self.session = None

        # Progress callback
        self.progress_callback: Optional[Callable] = None

        # Active worker, so an interrupt can reach it
        self._active = None

        # Signal handling
        self.interrupted = False
        signal.signal(signal.SIGINT, self._handle_interrupt)

    def _handle_interrupt(self, signum, frame):
        """Handle Ctrl+C gracefully"""
        if not self.interrupted:
            logger.warning("Interrupt received, finishing the current folder before stopping")
            self.interrupted = True
            if self._active is not None:
                self._active.interrupted = True
        else:
            sys.exit(1)

    def set_progress_callback(self, callback: Callable[[str, Dict], None]):
        """Set callback for progress updates"""
        self.progress_callback = callback

    # === Connection ===

    def connect(self) -> EwsMailboxSession:
        """Open the mailbox, via explicit URL or autodiscover"""
        logger.info(f"Connect to mailbox {self.config.mailbox}")

        if self.config.ignore_certificate:
            logger.warning("Ignoring SSL errors because ignorecertificate is set")
            BaseProtocol.HTTP_ADAPTER_CLS = NoVerifyHTTPAdapter

        try:
            if self.config.url:
                account = self._connect_with_url()
            else:
                account = self._connect_with_autodiscover()
        except MailboxConnectionError:
            raise
        except (EWSError, ValueError, OSError) as error:
            logger.error(f"Connection to mailbox failed: {error}")
            raise MailboxConnectionError(f"Connection to mailbox {self.config.mailbox} failed: {error}") from error

        self.session = EwsMailboxSession(account)
        logger.debug("Service created")
        return self.session

    def _connect_with_url(self) -> Account:
        logger.debug(f"Server URL: {self.config.url}")
        configuration = Configuration(service_endpoint=self.config.url, **self._auth_kwargs())
        return Account(
            primary_smtp_address=self.config.mailbox,
            config=configuration,
            autodiscover=False,
            access_type=self._access_type()
        )

    def _connect_with_autodiscover(self) -> Account:
        logger.debug("Server URL: using autodiscover")
        auth = self._auth_kwargs()
        account = Account(
            primary_smtp_address=self.config.mailbox,
            credentials=auth.get('credentials'),
            config=Configuration(**auth) if 'auth_type' in auth else None,
            autodiscover=True,
            access_type=self._access_type()
        )
        self.check_redirection(account.protocol.service_endpoint)
        return account

    def check_redirection(self, endpoint: str) -> None:
        """Accept or reject the endpoint autodiscover settled on.

        Runs after discovery, so it does not stop credentials from reaching
        hosts autodiscover was redirected through.
        """
        parsed = urlparse(endpoint)
        if self.config.allow_redirection:
            if parsed.scheme.lower() != 'https':
                raise MailboxConnectionError(f"Refusing non-HTTPS autodiscover endpoint {endpoint}")
            return

        mailbox_domain = self.config.mailbox.rpartition('@')[2].lower()
        host = (parsed.hostname or '').lower()
        if host != mailbox_domain and not host.endswith('.' + mailbox_domain):
            raise MailboxConnectionError(
                f"Autodiscover redirected to {host}, outside {mailbox_domain}. Use allowredirection to accept it."
            )

    def _auth_kwargs(self) -> Dict:
        """Explicit credentials when user and password are set, else the running user's"""
        if self.config.user and self.config.password:
            logger.debug(f"user: {self.config.user}")
            logger.debug("password: is set, will not be logged")
            return {'credentials': Credentials(username=self.config.user, password=self.config.password)}

        logger.debug("Using the credentials of the current user")
        return {'auth_type': SSPI if os.name == 'nt' else GSSAPI}

    def _access_type(self) -> str:
        return IMPERSONATION if self.config.impersonate else DELEGATE

    def _require_session(self) -> EwsMailboxSession:
        if not self.session:
            raise MailboxConnectionError("Not connected. Call connect() first.")
        return self.session

    # === Enumeration (delegates to FolderEnumerator) ===

    async def list_folders(self) -> List[FolderRef]:
        """All folders below the mailbox or archive root"""
        session = self._require_session()
        root = session.root_folder(archive=self.config.archive)

        if self.config.archive:
            logger.debug("Searching in archive instead of mailbox")

        enumerator = FolderEnumerator(session, progress_callback=self.progress_callback)
        self._active = enumerator
        try:
            return await enumerator.traverse(root)
        finally:
            self._active = None

    async def filter_folders(self, folders: List[FolderRef], foldername: Optional[str]) -> List[FolderRef]:
        """Keep folders whose path contains foldername"""
        return await filter_folders_by_path(self._require_session(), folders, foldername)

    # === Removal (delegates to TagRemover) ===

    async def remove_tags(
        self,
        folders: List[FolderRef],
        retention_ids: Optional[Set[str]] = None,
        commit: bool = False
    ) -> RunSummary:
        """Clear personal retention tags, returns the run summary"""
        config = RemovalConfig(commit=commit, retention_filter=retention_ids)
        remover = TagRemover(self._require_session(), config, self.progress_callback)
        remover.interrupted = self.interrupted
        self._active = remover
        try:
            return await remover.process(folders)
        finally:
            self._active = None
