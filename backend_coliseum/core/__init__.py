# Core exceptions shared across scoring, aggregation, storage and API layers.
