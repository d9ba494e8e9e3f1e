# Wobulezi HTTP layer
