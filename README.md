# vaultshare

A library for storing, appending to, sharing and revoking files on a storage
service that nobody trusts. File contents, file metadata, user records and
sharing records are encrypted and authenticated before they are put in the
`Datastore`; the only public data sits in the `Keystore`, which holds each
user's public encryption key and signature verification key.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Concepts

- **Datastore** (`vaultshare.store.Datastore`) – a key-value store mapping
  UUIDs to byte strings, with `get`, `set`, `delete` and `clear`. Anything in it
  may be read, changed or removed by an attacker; the client detects tampering
  and raises.
- **Keystore** (`vaultshare.store.Keystore`) – a public directory of keys by
  name, with `get`, `set` and `clear`. A name can be set only once; setting it
  again raises `ValueError`.
- **User** – created with `init_user(username, password)` and logged in again
  with `get_user(username, password)`. The user's private keys are stored in
  the datastore, encrypted and MAC'd under a key derived from the password. An
  empty username, a name already taken, an unknown user and a wrong password
  all raise `ClientError`.
- **Files** – kept as a chain of encrypted blocks: `store_file` replaces the
  content with a single block, `append_to_file` adds one block without touching
  the others, and `load_file` walks the chain back and joins the blocks. File
  names are private to each user.
- **Sharing** – `create_invitation(user, filename, recipient)` returns an
  invitation id; the recipient calls
  `accept_invitation(recipient, sender, invitation_id, new_filename)` to take
  the file under a name of their own. Recipients may invite others in turn; each
  invited user belongs to the group of the user the owner shared with directly.
  Accepting under a name that already refers to a readable file raises.
- **Revocation** – `revoke_access(user, filename, recipient)` removes the
  recipient's group from the file's invitation table, re-encrypts the file and
  all its blocks under fresh keys, and hands the new keys only to the owner and
  the remaining groups. Members of the revoked group can no longer open the
  file, and a member of a revoked group can no longer invite anyone.

Every failure is raised as an exception: `ClientError` from the client and
sharing functions, `EnvelopeError` from `vaultshare.envelope`, and
`CryptoError` from `vaultshare.crypto` (`EnvelopeError` is a subclass of
`CryptoError`).

## Usage

```python
from vaultshare.client import ClientError, get_user, init_user
from vaultshare.sharing import accept_invitation, create_invitation, revoke_access

password = "password"

alice = init_user("alice", password)
bob = init_user("bob", password)

alice.store_file("notes.txt", b"first line\n")
alice.append_to_file("notes.txt", b"second line\n")
assert alice.load_file("notes.txt") == b"first line\nsecond line\n"

# Share with bob, who keeps it under a name of his own.
invitation_id = create_invitation(alice, "notes.txt", "bob")
accept_invitation(bob, "alice", invitation_id, "from_alice.txt")
assert bob.load_file("from_alice.txt") == b"first line\nsecond line\n"

# Changes made by either side are seen by both.
bob.append_to_file("from_alice.txt", b"bob was here\n")
assert alice.load_file("notes.txt").endswith(b"bob was here\n")

# A second session for the same user sees the same files.
alice_again = get_user("alice", password)
assert alice_again.load_file("notes.txt") == alice.load_file("notes.txt")

# After revocation bob can no longer read the file.
revoke_access(alice, "notes.txt", "bob")
try:
    bob.load_file("from_alice.txt")
except ClientError:
    pass
```

## Storage

The client works on one shared `Datastore` and one shared `Keystore`,
`vaultshare.store.DATASTORE` and `vaultshare.store.KEYSTORE`. `reset()` empties
both, which is handy between tests:

```python
from vaultshare.store import reset

reset()
```

## Cryptographic building blocks

`vaultshare.crypto` holds the primitives:

- `hash_bytes` – SHA-512;
- `argon2_key` – Argon2id password key derivation, falling back to scrypt
  where the installed `cryptography` has no Argon2id;
- `random_bytes`;
- `sym_enc` / `sym_dec` – AES-128 in CTR mode, the IV prepended to the
  ciphertext;
- `hmac_eval` / `hmac_equal` – HMAC-SHA512 with a 16-byte key, constant-time
  comparison;
- `hash_kdf` – a 64-byte key derived from a 16-byte key and a purpose;
- `pke_keygen`, `pke_enc`, `pke_dec` – RSA-2048 with OAEP over SHA-512;
- `ds_keygen`, `ds_sign`, `ds_verify` – RSA-2048 PKCS#1 v1.5 signatures over
  SHA-512.

`vaultshare.envelope` combines them into authenticated envelopes around
JSON-serialisable data (plain values, or the records of `vaultshare.records`,
which have `to_dict` and `from_dict`):

- `auth_sym_enc` / `auth_sym_dec` – encrypt-then-MAC with symmetric keys;
- `auth_asym_enc` / `auth_asym_dec` – public-key encryption plus a signature;
- `auth_hybrid_enc` / `auth_hybrid_dec` – fresh symmetric keys wrapped with
  public-key encryption, the whole signed, for data too large for public-key
  encryption alone;
- `hash_kdf16` – a 16-byte key for a given purpose.

## What this package does not do

- The datastore and keystore live in memory in the current process only;
  nothing is written to disk and nothing is served over a network.
- There is no command-line program; the package is used as a library.
- Only a file's owner's view of sharing is kept in the invitation table;
  `revoke_access` does not check that its caller is the owner.