"""CalCost: quoting, fittings and online orders for textile workshops."""
