"""Storage backends for the event tracker: in memory, SQLite and LMDB."""