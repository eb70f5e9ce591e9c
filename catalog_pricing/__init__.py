# catalog_pricing: pricing decision engine for the product catalog
