import base64
import email.utils
import hashlib
import logging

import requests
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from catalog_smoke.util.errors import ToolingMissingError, TransientNetworkError

logger = logging.getLogger(__name__)

SIGNING_ALGORITHM = "rsa-sha256"


def load_private_key(key_path, passphrase=None):
    """Load a PEM-encoded RSA private key.

    Raises:
        ToolingMissingError: The key doesn't exist or can't be loaded.
    """
    try:
        with open(key_path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ToolingMissingError("Could not read key %s: %s" % (key_path, e))

    password = passphrase.encode() if passphrase else None
    try:
        return serialization.load_pem_private_key(data, password=password)
    except (ValueError, TypeError) as e:
        raise ToolingMissingError("Could not load key %s: %s" % (key_path, e))


def key_fingerprint(private_key):
    """Compute the MD5 fingerprint of the public half of the key, in the colon-separated
    hexadecimal form used to identify keys on the cloud API."""
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    )
    # The OpenSSH format is "ssh-rsa <base64 blob>", the fingerprint is computed on the
    # decoded blob.
    blob = base64.b64decode(public_bytes.split()[1])
    digest = hashlib.md5(blob).hexdigest()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))


class SignedAPIClient:
    def __init__(self, url, login, key_path, key_id=None, passphrase=None,
                 api_version="~8", timeout=60, session=None):
        """A client for the cloud's control-plane API which signs every request with the
        account's private key.

        Args:
            url (str): Base URL of the API, e.g. "https://us-east-1.api.joyent.com".
            login (str): The account's login.
            key_path (str): Path to the account's RSA private key.
            key_id (str): Identifier of the key on the account. Defaults to the key's
                MD5 fingerprint.
            passphrase (str): Passphrase for the key, if it's encrypted.
            api_version (str): Value of the X-Api-Version header.
            timeout (float): Timeout of each request, in seconds.
            session (requests.Session): The session to send requests with.
        """
        self.url = url.rstrip("/")
        self.login = login
        self.private_key = load_private_key(key_path, passphrase)
        self.key_id = key_id or key_fingerprint(self.private_key)
        self.api_version = api_version
        self.timeout = timeout
        self.session = session or requests.Session()

    def sign(self, date):
        signature = self.private_key.sign(
            date.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256()
        )
        return base64.b64encode(signature).decode("ascii")

    def headers(self):
        """Build the headers for a request. The date and its signature are computed
        anew every time, because the API rejects requests with too much clock skew."""
        date = email.utils.formatdate(usegmt=True)
        authorization = 'Signature keyId="/%s/keys/%s",algorithm="%s" %s' % (
            self.login, self.key_id, SIGNING_ALGORITHM, self.sign(date),
        )

        return {
            "Accept": "application/json",
            "Authorization": authorization,
            "Date": date,
            "X-Api-Version": self.api_version,
        }

    def call(self, method, path, params=None):
        """Send a signed request to the API.

        GET parameters are sent in the query string, other methods send them as a form
        body. The request isn't retried.

        Args:
            method (str): The HTTP method.
            path (str): The path of the endpoint, e.g. "/login/machines".
            params (list): Ordered (key, value) pairs.

        Returns:
            The decoded JSON document, the raw text if the response isn't JSON, or an
            empty string if there's no content.

        Raises:
            TransientNetworkError: The request couldn't be completed.
        """
        method = method.upper()
        kwargs = {"params": params} if method == "GET" else {"data": params}

        try:
            response = self.session.request(
                method,
                self.url + path,
                headers=self.headers(),
                timeout=self.timeout,
                **kwargs
            )
        except requests.RequestException as e:
            raise TransientNetworkError("%s %s failed: %s" % (method, path, e))

        logger.debug("%s %s -> %d", method, path, response.status_code)

        if not response.text:
            return ""

        try:
            return response.json()
        except ValueError:
            return response.text
