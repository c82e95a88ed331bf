# chips/microbit.py
from components.peripherals import (
    BleAdvertisement, DefaultPeripherals, Flash, GpioPin, I2c, PeripheralKind, Rng, Spi,
    Temperature, Timer, Uart,
)
from components.platform import Chip, MemoryProtection, SysTick

PERIPHERALS_TYPE = "nrf52833::interrupt_service::Nrf52833DefaultPeripherals<'static>"


class MicroBit(Chip):
    """BBC micro:bit v2 (nRF52833, Cortex-M4)."""
    name = "microbit"

    # P0.xx / P1.xx pins broken out on the edge connector
    EDGE_PINS = (
        "P0_02", "P0_03", "P0_04", "P0_31", "P0_28", "P0_14", "P1_05", "P0_11",
        "P0_10", "P0_09", "P0_30", "P1_02", "P0_12", "P0_17", "P0_01", "P0_13",
    )

    def __init__(self):
        catalog = {
            PeripheralKind.UART: [
                Uart("uarte0", "nrf52833::uart::Uarte<'static>",
                     "nrf52833::uart::Uarte::new(nrf52833::uart::UARTE0_BASE)",
                     setup="uarte0.initialize(nrf52::pinmux::Pinmux::new(6), "
                           "nrf52::pinmux::Pinmux::new(40), None, None);"),
            ],
            PeripheralKind.TIMER: [
                Timer("rtc", "nrf52::rtc::Rtc<'static>", "nrf52::rtc::Rtc::new()", frequency=32768),
            ],
            PeripheralKind.GPIO: [
                GpioPin(f"gpio_{name.lower()}", "nrf52::gpio::GPIOPin<'static>",
                        f"nrf52833::gpio::GPIOPin::new(nrf52833::gpio::Pin::{name})", index=i)
                for i, name in enumerate(self.EDGE_PINS)
            ],
            PeripheralKind.SPI: [
                Spi("spim0", "nrf52::spi::SPIM<'static>", "nrf52::spi::SPIM::new(0)"),
            ],
            PeripheralKind.I2C: [
                I2c("twi1", "nrf52::i2c::TWI<'static>", "nrf52::i2c::TWI::new_twi1()"),
            ],
            PeripheralKind.BLE: [
                BleAdvertisement("radio", "nrf52::ble_radio::Radio<'static>",
                                 "nrf52::ble_radio::Radio::new()"),
            ],
            PeripheralKind.FLASH: [
                Flash("nvmc", "nrf52::nvmc::Nvmc", "nrf52::nvmc::Nvmc::new()",
                      page_type="nrf52::nvmc::NrfPage", page_size=4096, pages_per_bank=128),
            ],
            PeripheralKind.RNG: [
                Rng("trng", "nrf52::trng::Trng<'static>", "nrf52::trng::Trng::new()"),
            ],
            PeripheralKind.TEMPERATURE: [
                Temperature("temp", "nrf52::temperature::Temp<'static>", "nrf52::temperature::Temp::new()"),
            ],
        }
        peripherals = DefaultPeripherals(
            PERIPHERALS_TYPE,
            "nrf52833::interrupt_service::Nrf52833DefaultPeripherals::new",
            catalog,
            chip_name=self.name,
        )
        mpu = MemoryProtection("mpu", "cortexm4::mpu::MPU", "cortexm4::mpu::MPU::new()")
        super().__init__(
            f"nrf52833::chip::NRF52<'static, {PERIPHERALS_TYPE}>",
            peripherals,
            mpu,
            f"nrf52833::chip::NRF52::new({peripherals.identifier})",
            systick=SysTick("cortexm4::systick::SysTick",
                            "cortexm4::systick::SysTick::new_with_calibration(64000000)"),
        )

    def before_boot(self):
        return "nrf52833::init();"
