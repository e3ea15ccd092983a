"""
Bill Ledger Verification Script

Verifies data integrity of the Excel bill ledger.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from hotel_billing.services.excel_manager import ExcelManager

LEDGER_FILE = str(ExcelManager().ledger_file)


def verify_ledger() -> bool:
    """Verify ledger integrity after a simulation run."""

    print("=" * 60)
    print("🔍 BILL LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {LEDGER_FILE}")
    print("=" * 60)

    # Check if file exists
    if not os.path.exists(LEDGER_FILE):
        print("\n❌ Ledger file not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    # Load Excel file
    try:
        df = pd.read_excel(LEDGER_FILE, engine='openpyxl')
        print(f"\n✅ File loaded successfully!")
    except Exception as e:
        print(f"\n❌ Could not read ledger: {e}")
        return False

    # Statistics
    print(f"\n📊 STATISTICS:")
    print(f"   Total Bills: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    # Check required columns
    required = ['bill_number', 'subtotal', 'tax', 'total', 'created_by']
    missing = [col for col in required if col not in df.columns]

    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
    else:
        print(f"\n✅ All required columns present")

    # Check duplicates
    if 'bill_number' in df.columns:
        duplicates = df['bill_number'].duplicated().sum()
        if duplicates > 0:
            print(f"\n⚠️ {duplicates} duplicate bill numbers found!")
        else:
            print(f"✅ No duplicate bill numbers")

    # Totals must equal subtotal + tax
    if not missing:
        off = ((df['subtotal'] + df['tax'] - df['total']).abs() > 0.005).sum()
        if off > 0:
            print(f"⚠️ {off} bill(s) where total != subtotal + tax")
        else:
            print(f"✅ Every total equals subtotal + tax")

    # Revenue
    if 'total' in df.columns:
        total = df['total'].sum()
        avg = df['total'].mean()
        print(f"\n💰 BILLED:")
        print(f"   Total: ₹{total:.2f}")
        print(f"   Average: ₹{avg:.2f}")

    if 'payment_method' in df.columns and len(df) > 0:
        print(f"\n💳 BY PAYMENT METHOD:")
        counts = df['payment_method'].fillna('Not recorded').value_counts()
        for method, count in counts.items():
            print(f"   {method}: {count}")

    # Sample data
    print(f"\n📋 RECENT BILLS:")
    print("-" * 60)
    if len(df) > 0:
        cols = ['bill_number', 'customer_name', 'room_number', 'total']
        cols = [c for c in cols if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE")
    print("=" * 60)

    return True


if __name__ == "__main__":
    verify_ledger()
