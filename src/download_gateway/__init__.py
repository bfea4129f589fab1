"""Authenticated download gateway: signed links, proof-of-work captcha and download quotas."""
