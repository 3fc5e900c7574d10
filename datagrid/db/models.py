from sqlalchemy import Column, String, Text, Integer, Float
from datagrid.db.database import Base

# Demo tables backing the built-in grid registry. Every grid table carries
# a `del` flag; rows with del=1 are soft-deleted.

class Customer(Base):
    __tablename__ = "demo_customers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    country = Column(String(2), nullable=True)
    deleted = Column("del", Integer, nullable=False, default=0, server_default="0")

class Invoice(Base):
    __tablename__ = "demo_invoices"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_no = Column(String(64), nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_id = Column(Integer, nullable=True, index=True)
    invoice_date = Column(String(19), nullable=True)           # ISO date or datetime text
    status = Column(String(32), nullable=True)                 # Inline select options
    is_paid = Column(Integer, nullable=True, default=0)        # Checkbox 0/1
    notes = Column(Text, nullable=True)
    deleted = Column("del", Integer, nullable=False, default=0, server_default="0")

class InvoiceItem(Base):
    __tablename__ = "demo_invoice_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_id = Column(Integer, nullable=True, index=True)    # Link to demo_invoices.id
    product_name = Column(String(255), nullable=True)
    qty = Column(Float, nullable=True)
    price = Column(Float, nullable=True)
    deleted = Column("del", Integer, nullable=False, default=0, server_default="0")
