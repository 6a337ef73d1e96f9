"""
Wallet components: ledger types, coin selection, signing and persistence.
"""
