#!/usr/bin/env python3
"""Generate a Fernet encryption key for VIEWINGDESK_STORE_KEY."""

from cryptography.fernet import Fernet

if __name__ == "__main__":
    key = Fernet.generate_key().decode()
    print("Add this line to your environment to encrypt the appointment store at rest:\n")
    print(f"VIEWINGDESK_STORE_KEY={key}")
