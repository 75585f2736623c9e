"""Contract event tracking with reorganisation handling."""