"""secp256k1 keys and transaction signing."""