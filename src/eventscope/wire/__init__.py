"""Wire transport of events.

Structure:
    codec.py       - Line codec (encode/decode)
    receiver.py    - TCP line receiver feeding a persister
"""

__all__: list[str] = []
